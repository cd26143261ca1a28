"""
Custom exception classes for the service-area pipeline
"""

class ServiceAreaError(Exception):
    """Base class for service-area errors"""
    pass

class ValidationError(ServiceAreaError):
    """Raised when a client record or user input fails validation"""
    pass

class MapGenerationError(ServiceAreaError):
    """Raised during map creation or rendering errors"""
    pass

class BundleError(ServiceAreaError):
    """Raised when the precomputed bundle cannot be written"""
    pass

class ClientNotFoundError(ServiceAreaError):
    """Raised when a client name is not in the client list"""
    pass
