'''Macro-callable bridge to the object graph of an *OMERO* image repository.
'''
from omeroext.version import __version__
