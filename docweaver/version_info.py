__version__ = "1.2.0"
__build_timestamp__ = "source"
__build_type__ = "development"
__description__ = "Markdown to Word converter with configurable document templates"
