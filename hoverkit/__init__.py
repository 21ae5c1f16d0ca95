"""
hoverkit - Flutter engine cache and native build preparation for go-flutter.

This package downloads and assembles the Flutter engine artifacts needed to
build a go-flutter desktop application, runs the AOT snapshot pipeline and
composes the cgo build environment.
"""

__version__ = "0.1.0"
