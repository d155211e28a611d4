# File: slotpark/application/__init__.py
