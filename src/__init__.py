"""Certificate Number Extraction.

Locates the registration and voucher numbers printed on scanned
certificates with Tesseract OCR, widening the search window until two
readings agree.
"""
