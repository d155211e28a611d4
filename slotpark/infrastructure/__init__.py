# File: slotpark/infrastructure/__init__.py
