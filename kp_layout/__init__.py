"""
KP Layout — multi-page commercial proposal (KP) layout and PDF export

Packages:
    layout/     Page geometry, column widths, fonts, row heights, pagination, overlays
    core/       Settings, item list, keyed stores and paths
    forms/      reportlab PDF generation
    api/        Flask blueprint for settings, items, preview and export
"""
