#!/usr/bin/env python
from setuptools import setup
setup(
    name='multihttp',
    version='1.0',
    description='Declarative HTTP requests and concurrent batches',
    author='Six Apart',
    author_email='python@sixapart.com',
    url='http://sixapart.github.com/multihttp/',

    packages=['multihttp'],
    provides=['multihttp'],
    install_requires=[
        'httplib2>=0.19',
        'PySocks',
        'httpx>=0.26',
    ],
    extras_require={
        'test': ['pytest'],
    },
)
