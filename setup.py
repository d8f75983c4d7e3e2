#!/usr/bin/env python3

import os

from setuptools import find_namespace_packages, setup

if __name__ == '__main__':
    setup(
        name='flowlogic',
        version='0.1.0',
        description='Flow-control primitives for async Python',
        author='Ilya Egorov',
        author_email='0x42005e1f@gmail.com',
        license='ISC',
        python_requires='>=3.8',
        install_requires=[
            'sniffio>=1.3.0',
            'typing-extensions>=4.10.0; python_version<"3.13"',
            'wrapt>=1.16.0',
        ],
        extras_require={
            'docs': [
                'sphinx>=7.0.0',
                'sphinx-rtd-theme>=2.0.0',
            ],
            'test': [
                'anyio>=4.0.0',
                'pytest>=8.0.0',
                'trio>=0.23.0',
            ],
        },
        package_dir={'': 'src'},
        packages=find_namespace_packages(where='src'),
        py_modules=[
            entry.name[:-3]
            for entry in os.scandir('src')
            if (
                not entry.name.startswith('.')
                and entry.name.endswith('.py')
                and entry.is_file()
            )
        ]
    )
