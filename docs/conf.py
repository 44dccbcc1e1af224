import os
import sys

# Configuration file for the Sphinx documentation builder.
# https://www.sphinx-doc.org/en/master/usage/configuration.html

sys.path.insert(0, os.path.abspath(".."))

project = "Blast"
author = "Blast contributors"

extensions = [
    "sphinx.ext.autodoc",
    "sphinx.ext.napoleon",
    "sphinx.ext.mathjax",
    "sphinx_math_dollar",
]

# Members in source order, so operations read as in ops.py and functional.py
autodoc_member_order = "bysource"
napoleon_google_docstring = True
napoleon_use_rtype = False
exclude_patterns = ["_build", "Thumbs.db", ".DS_Store", ".venv"]

html_theme = "alabaster"
