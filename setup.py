#!/usr/bin/env python

from setuptools import find_packages, setup

install_requires = [
    "openstacksdk>=1.0.0",
    "keystoneauth1>=5.0.0",
    "pydantic>=2.0",
    "structlog>=23.1.0",
    "PyYAML>=6.0.1",
    "sentry-sdk>=1.40.0",
]

tests_requires = [
    "freezegun>=1.2.0",
    "pytest>=7.1.2",
]

setup(
    name="mcm-provider-openstack",
    version="0.1.0",
    author="OpenNode Team",
    author_email="info@opennodecloud.com",
    license="MIT",
    description="OpenStack machine driver for the machine controller manager.",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    python_requires=">=3.9",
    install_requires=install_requires,
    tests_require=tests_requires,
    extras_require={"test": tests_requires},
    packages=find_packages(include=["mcm_provider_openstack", "mcm_provider_openstack.*"]),
    entry_points={
        "console_scripts": [
            "mcm-provider-openstack=mcm_provider_openstack.main:main",
        ],
    },
    classifiers=[
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
)
