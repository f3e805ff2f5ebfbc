"""
imobcrm - WhatsApp CRM backend for real-estate agencies
"""
__version__ = "1.0.0"
