"""Sphinx configuration for the Dream Rent dashboard documentation."""

import os
import sys
from datetime import datetime

sys.path.insert(0, os.path.abspath(".."))

project = "Dream Rent Dashboard"
current_year = datetime.now().year
copyright = f"{current_year}, Dream Rent"
author = "Dream Rent Team"

extensions = [
    "sphinx.ext.autodoc",
    "sphinx.ext.napoleon",
]

autodoc_member_order = "bysource"
napoleon_google_docstring = True

templates_path = ["_templates"]
exclude_patterns: list[str] = ["_build"]

html_theme = "alabaster"

html_static_path = ["_static"]
