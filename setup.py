from setuptools import find_packages, setup

setup(
    name='tockloader-proto',
    version='0.1.0',
    description='Wire-protocol codec for the Tock bootloader used by tockloader',
    author='isantolin',
    author_email='',
    packages=find_packages(include=['tockloader_proto', 'tockloader_proto.*']),
    python_requires='>=3.11',
    install_requires=[
        'construct>=2.10',
        'msgspec>=0.18',
        'marshmallow>=3.13',
        'transitions>=0.9',
    ],
    extras_require={
        'test': [
            'pytest',
        ],
    },
    classifiers=[
        'Programming Language :: Python :: 3',
        'Operating System :: OS Independent',
    ],
)
