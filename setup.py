from setuptools import find_packages, setup

setup(
    name='boardlink',
    version='1.0.0',
    description='Asyncio session layer for Firmata-style microcontroller boards',
    author='',
    author_email='',
    packages=find_packages(include=['boardlink', 'boardlink.*']),
    python_requires='>=3.11',
    install_requires=[
        'msgspec',
        'transitions',
        'tenacity',
        'construct',
    ],
    extras_require={
        'test': [
            'pytest',
            'pytest-asyncio',
        ],
    },
    classifiers=[
        'Programming Language :: Python :: 3',
        'Operating System :: POSIX :: Linux',
    ],
)
