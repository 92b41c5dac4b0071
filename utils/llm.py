"""Claude API client used by the generator's LLM mode."""

import logging
import os
import re
import time

import anthropic

from config.defaults import DEFAULTS

logger = logging.getLogger(__name__)

MODEL = DEFAULTS["model"]
MAX_TOKENS = DEFAULTS["max_tokens"]
TRUNCATION_MARKER = "// TRUNCATED: response hit token limit"


def get_client():
    """Return an Anthropic client. Raises if no API key is set."""
    api_key = os.environ.get("ANTHROPIC_API_KEY")
    if not api_key:
        raise RuntimeError(
            "ANTHROPIC_API_KEY environment variable is not set. "
            "LLM mode needs it; drop --llm to generate from templates."
        )
    return anthropic.Anthropic(api_key=api_key)


def call_llm(system_prompt, user_message):
    """Call Claude and return the raw text response.

    One retry on API errors. A response cut off at the token limit gets
    TRUNCATION_MARKER appended so callers can tell.
    """
    client = get_client()

    for attempt in range(2):
        try:
            # Streaming avoids the SDK timeout for large max_tokens
            text = ""
            with client.messages.stream(
                model=MODEL,
                max_tokens=MAX_TOKENS,
                system=system_prompt,
                messages=[{"role": "user", "content": user_message}],
            ) as stream:
                for chunk in stream.text_stream:
                    text += chunk
                stop_reason = stream.get_final_message().stop_reason

            if stop_reason == "max_tokens":
                logger.warning("[Generate] model response truncated at %d tokens", MAX_TOKENS)
                text += "\n\n" + TRUNCATION_MARKER
            return text

        except anthropic.APIError as e:
            if attempt == 0:
                logger.warning("[Generate] API error, retrying once: %s", e)
                time.sleep(2)
                continue
            raise


def parse_files(response):
    """Extract (filename, content) pairs from fenced code blocks.

    Handles the formats Claude may use:
        ```src/main/java/pages/Login.java     (filepath as info string)
        ```java src/main/java/pages/Login.java (language then filepath)
        ```java                               (language, path in a first-line comment)
        // src/main/java/pages/Login.java
        ...
        ```

    Returns list of (relative_path, content) tuples.
    """
    files = []
    pattern = re.compile(
        r"```(\S+?)(?:[ \t]+(\S+?))?\n(.*?)```",
        re.DOTALL,
    )

    comment_path_re = re.compile(
        r"^(?:#|//|/\*)\s*(.+?\.\w+)\s*(?:\*/)?\s*\n",
    )

    for match in pattern.finditer(response):
        tag = match.group(1)
        second = match.group(2)
        content = match.group(3)

        filename = None
        if "." in tag:
            # ```Login.feature or ```src/.../Login.java
            filename = tag
        elif second and "." in second:
            filename = second
        else:
            cm = comment_path_re.match(content)
            if cm:
                filename = cm.group(1).strip()
                content = content[cm.end():]

        if not filename:
            continue

        if content.endswith("\n"):
            content = content[:-1]

        files.append((filename, content))
    return files
