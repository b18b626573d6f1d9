"""X.509 helpers for the tenant CA and TLS leaf certificates."""

from __future__ import annotations

import datetime

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

DEFAULT_RSA_KEY_SIZE = 2048
CERT_VALIDITY = datetime.timedelta(days=365)


def new_private_key(key_size: int = DEFAULT_RSA_KEY_SIZE) -> rsa.RSAPrivateKey:
    """Generate a new RSA private key."""
    return rsa.generate_private_key(public_exponent=65537, key_size=key_size)


def new_self_signed_ca(key: rsa.RSAPrivateKey, common_name: str) -> x509.Certificate:
    """Create a self-signed CA certificate with a one year lease.

    Args:
        key: CA private key
        common_name: Subject and issuer common name

    Returns:
        The CA certificate
    """
    now = datetime.datetime.now(datetime.timezone.utc)
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    return (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now)
        .not_valid_after(now + CERT_VALIDITY)
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=True,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=True,
                crl_sign=False,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
        .sign(key, hashes.SHA256())
    )


def new_signed_certificate(
    common_name: str,
    organization: str,
    dns_names: list[str],
    key: rsa.RSAPrivateKey,
    ca_cert: x509.Certificate,
    ca_key: rsa.RSAPrivateKey,
) -> x509.Certificate:
    """Sign a leaf certificate usable for both client and server auth.

    Args:
        common_name: Subject common name
        organization: Subject organization
        dns_names: Subject alternative DNS names
        key: Leaf private key
        ca_cert: Issuing CA certificate
        ca_key: Issuing CA private key

    Returns:
        The signed leaf certificate
    """
    now = datetime.datetime.now(datetime.timezone.utc)
    subject = x509.Name([
        x509.NameAttribute(NameOID.COMMON_NAME, common_name),
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, organization),
    ])
    builder = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(ca_cert.subject)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(ca_cert.not_valid_before_utc)
        .not_valid_after(now + CERT_VALIDITY)
        .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
        .add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=True,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=False,
                crl_sign=False,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
        .add_extension(
            x509.ExtendedKeyUsage([ExtendedKeyUsageOID.CLIENT_AUTH, ExtendedKeyUsageOID.SERVER_AUTH]),
            critical=False,
        )
    )
    if dns_names:
        builder = builder.add_extension(
            x509.SubjectAlternativeName([x509.DNSName(n) for n in dns_names]),
            critical=False,
        )
    return builder.sign(ca_key, hashes.SHA256())


def encode_private_key_pem(key: rsa.RSAPrivateKey) -> bytes:
    """Encode a private key as a PKCS#1 "RSA PRIVATE KEY" PEM block."""
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    )


def encode_certificate_pem(cert: x509.Certificate) -> bytes:
    return cert.public_bytes(serialization.Encoding.PEM)


def parse_certificate_pem(pem_data: bytes | str) -> x509.Certificate:
    """Parse a PEM encoded certificate.

    Raises:
        ValueError: If the data holds no PEM certificate
    """
    if isinstance(pem_data, str):
        pem_data = pem_data.encode("utf-8")
    if b"-----BEGIN" not in pem_data:
        raise ValueError("no PEM data found")
    return x509.load_pem_x509_certificate(pem_data)


def parse_private_key_pem(pem_data: bytes | str) -> rsa.RSAPrivateKey:
    """Parse a PEM encoded RSA private key.

    Raises:
        ValueError: If the data holds no PEM key or the key is not RSA
    """
    if isinstance(pem_data, str):
        pem_data = pem_data.encode("utf-8")
    if b"-----BEGIN" not in pem_data:
        raise ValueError("no PEM data found")
    key = serialization.load_pem_private_key(pem_data, password=None)
    if not isinstance(key, rsa.RSAPrivateKey):
        raise ValueError("private key is not an RSA key")
    return key


def verify_signed_by(cert: x509.Certificate, ca_cert: x509.Certificate) -> bool:
    """Check that a certificate was issued and signed by the given CA."""
    if cert.issuer != ca_cert.subject:
        return False
    public_key = ca_cert.public_key()
    if not isinstance(public_key, rsa.RSAPublicKey):
        return False
    try:
        public_key.verify(
            cert.signature,
            cert.tbs_certificate_bytes,
            padding.PKCS1v15(),
            cert.signature_hash_algorithm,
        )
    except InvalidSignature:
        return False
    return True


def certificate_matches_key(cert: x509.Certificate, key: rsa.RSAPrivateKey) -> bool:
    """Check that a certificate carries the public half of the given key."""
    return cert.public_key().public_numbers() == key.public_key().public_numbers()
