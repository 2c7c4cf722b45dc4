"""
Exception types raised by the shadow compliance engine
"""


class ShadowCheckError(Exception):
    """Base class for engine errors"""


class InputError(ShadowCheckError):
    """Site or zoning input is missing or invalid; the engine is not invoked"""


class InvalidParametersError(ShadowCheckError):
    """Building parameters cannot produce a valid massing"""
