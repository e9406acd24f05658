"""Scan report model and the table, JSON and template writers."""