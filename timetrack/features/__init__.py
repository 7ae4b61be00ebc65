"""Feature modules"""
