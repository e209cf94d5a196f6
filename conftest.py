import os

# Tests run against SQLite unless USE_POSTGRES is set explicitly.
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "project.settings")
os.environ.setdefault("USE_POSTGRES", "false")
