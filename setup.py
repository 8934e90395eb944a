from setuptools import setup, find_packages

setup(
    name="claimgraph",
    version="0.1.0",
    description="Content-addressed claims with Ed25519 witness attestations and reputation scoring",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    install_requires=["pynacl>=1.5.0", "httpx>=0.24", "python-json-logger>=3.1"],
    extras_require={"dev": ["pytest>=7.0", "respx>=0.20"]},
    entry_points={"console_scripts": ["claimgraph=claimgraph.cli:main"]},
    python_requires=">=3.9",
    license="CC0-1.0",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Security :: Cryptography",
        "Topic :: Software Development :: Libraries",
        "License :: CC0 1.0 Universal (CC0 1.0) Public Domain Dedication",
        "Programming Language :: Python :: 3",
    ],
    keywords="claims provenance attestation reputation ed25519 ipfs cid",
)
