import os
import sys

from setuptools import setup

sys.path.append('src')
from vagrantfleet import metadata


setup(
    name=metadata.package,
    version='0.1.0',
    description=metadata.description,
    author=metadata.authors_string,
    author_email=', '.join(metadata.emails),
    url=metadata.url,
    license=metadata.license,
    python_requires='>=3.10',
    packages=[
        'vagrantfleet',
        'vagrantfleet.loggers',
        'vagrantfleet.scripts',
        'vagrantfleet.utils',
    ],
    package_dir={
        'vagrantfleet': os.path.join('src', 'vagrantfleet')
    },
    package_data={
        'vagrantfleet': ['assets/*'],
    },
    include_package_data=True,
    install_requires=[
        'invoke',
        'jinja2',
        'pyyaml',
    ],
    extras_require={
        'test': ['pytest'],
    },
    entry_points={
        'console_scripts': [
            'vagrantfleet=vagrantfleet.scripts.app:main',
        ],
    }
)
