"""Default session settings."""

DEFAULTS = {
    "max_attempts": 5,
    "hard_max_attempts": 5,     # absolute ceiling, cannot be overridden
    "build_tool": "maven",
    "model": "claude-sonnet-4-5-20250929",
    "max_tokens": 32768,
    "sandbox_timeout": 600,     # a clean Maven build can take minutes
    "allowed_commands": ["mvn", "mvn.cmd"],
    "log_level": "INFO",
}
