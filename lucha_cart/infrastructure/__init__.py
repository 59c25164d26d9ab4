"""
Infrastructure layer: configuration, logging, storage backends and the cart factory
"""
