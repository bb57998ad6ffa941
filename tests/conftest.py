import os

os.environ.setdefault("ENV", "test")

pytest_plugins = [
    "tests.fixtures.message_fixtures",
    "tests.fixtures.console_fixtures",
]
