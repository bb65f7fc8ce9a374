import setuptools

with open("README.md", "r") as fh:
    long_description = fh.read()

setuptools.setup(
    name="wdlparser",
    version="0.1.0",
    description="Parser and expression evaluator for Workflow Description Language 1.1",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=["WDLParser"],
    package_data={"WDLParser": ["config_templates/*.cfg"]},
    include_package_data=True,
    python_requires=">=3.8",
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
    entry_points={
        'console_scripts': [
            'wdlparser = WDLParser.CLI:main'
        ]
    },
    install_requires=[
        'lark>=1.1.5,<2',
        'regex',
        'python-json-logger',
        'coloredlogs',
        'argcomplete',
    ],
    extras_require={
        'test': ['pytest'],
    },
)
