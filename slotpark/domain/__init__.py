# File: slotpark/domain/__init__.py
