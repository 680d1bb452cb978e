from iocwire._internal.container import Container, RegistrationDecorator

__all__ = ["Container", "RegistrationDecorator"]
