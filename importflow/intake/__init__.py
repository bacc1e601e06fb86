"""
WhatsApp intake pipeline: correlation of names and screenshots, order
assembly and redelivery handling.
"""
