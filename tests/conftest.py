import os

# Unit tests never export traces
os.environ.setdefault("DISABLE_TRACING", "true")
