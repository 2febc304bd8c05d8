# casereview/api/__init__.py
