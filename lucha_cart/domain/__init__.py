"""
Domain layer: line items, money and the storage contract
"""
