# core/exceptions.py

class PrintEstimatorError(Exception):
    """Base class for all custom exceptions in this application."""
    pass

class ConfigurationError(PrintEstimatorError):
    """Exception raised for errors in configuration loading or validation."""
    pass

class InvalidFlowRateError(ConfigurationError):
    """A material declares a maximum flow rate that is zero or negative."""
    pass

class PricingTierError(ConfigurationError):
    """The pricing tier table overlaps, leaves gaps, or has inverted bounds."""
    pass

class MaterialNotFoundError(PrintEstimatorError):
    """Exception raised when a specified material ID cannot be found in the settings store."""
    pass

class FileFormatError(PrintEstimatorError):
    """Exception raised for unsupported or invalid input file formats."""
    pass

class GeometryProcessingError(PrintEstimatorError):
    """Exception raised during mesh loading, analysis, or manipulation."""
    pass

class MissingGeometryError(GeometryProcessingError):
    """Volume or dimensions are absent (or degenerate) when a simulation is requested."""
    pass

class InvalidParameterError(PrintEstimatorError):
    """A process or pricing parameter is outside its valid range."""
    pass

class AdvisoryResponseError(PrintEstimatorError):
    """The advisory classifier returned a payload that does not match its schema."""
    pass

class QuoteGenerationError(PrintEstimatorError):
    """Generic exception for failures during the overall quote generation pipeline."""
    pass
