from ._configuration import TLSConfig, load_tls_config
from ._errors import (
    BuildError,
    CertificateError,
    FileError,
    InvalidModeError,
    ParseError,
    TLSConfigError,
)
from ._policy import (
    CertificateProvider,
    ClientAuth,
    SecurityPolicy,
    TLSCertificate,
    TLSContextType,
    TrustPool,
    build_policy,
    load_certificate,
    load_policy,
    load_trust_pool,
)
from ._typing import AddressType

__version__ = "0.1"
