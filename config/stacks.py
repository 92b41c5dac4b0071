"""Build tool definitions: how to compile, how to run tests, where sources live."""

BUILD_TOOLS = {
    "maven": {
        "name": "Maven + Cucumber",
        "compile_command": ["mvn", "clean", "compile", "test-compile"],
        "test_command": ["mvn", "test", "-Dcucumber.filter.tags=@{tag}"],
        "main_root": "src/main/java",
        "test_root": "src/test/java",
        "main_packages": ["pages", "configs"],
        "page_dir": "src/main/java/pages",
        "steps_dir": "src/test/java/stepDefs",
        "features_dir": "src/test/resources/features",
    },
}

# Windows ships the Maven launcher as a .cmd script
WINDOWS_EXECUTABLES = {
    "mvn": "mvn.cmd",
}
