"""
Error taxonomy shared by the relay components.
"""


class RelayError(Exception):
  """Base class for relay failures."""


class AuthError(RelayError):
  """Handshake credentials were missing or wrong."""


class DecodeError(RelayError):
  """An image payload was not valid base64."""


class StorageError(RelayError):
  """Object storage rejected an upload or presign request."""


class ProtocolError(RelayError):
  """An inbound event payload did not match its schema."""


class DeviceOfflineError(RelayError):
  """A command was issued while no device is connected."""
