"""
Report generation.

Contains:
- ReportGenerator - markdown/JSON отчёты и сводка в консоль
"""
