# casereview/__init__.py
