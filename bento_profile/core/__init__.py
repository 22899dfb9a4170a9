# Core: grid placement, settings and errors. Mode resolution lives in core.mode
# (imported directly, it depends on the adapters package).
