from setuptools import setup, find_packages

# Import __version__
exec(open("mysql_conduit/version.py").read())

setup(
    name="mysql-conduit",
    version=__version__,
    description="A python implementation of the mysql client protocol",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    license="MIT",
    packages=find_packages(include=["mysql_conduit", "mysql_conduit.*"]),
    python_requires=">=3.10",
    install_requires=["sqlglot>=18.6.0"],
    extras_require={
        "dev": [
            "mypy",
            "mysql-mimic",
            "black",
            "coverage",
            "gssapi",
            "pylint",
            "pytest",
            "pytest-asyncio",
            "twine",
            "wheel",
        ],
        "krb5": ["gssapi"],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Operating System :: OS Independent",
        "Programming Language :: SQL",
        "Programming Language :: Python :: 3 :: Only",
    ],
)
