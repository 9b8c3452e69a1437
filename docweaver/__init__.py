"""
DocWeaver
Markdown authoring back end with styled Word (.docx) export.
"""
