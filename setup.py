# #!/usr/bin/env python

"""setup.py script for py_agile library"""

from setuptools import setup, find_packages


setup(
    name='py-agile',
    version='1.2.0',
    description='Uniform control interface and run driver for HEP event generators',
    python_requires='>=3.9',
    packages=find_packages(include=['py_agile', 'py_agile.*']),
    install_requires=[
        'typing_extensions>=4.12.0',
        'numpy>=1.24',
        "tomli>=2.0.1; python_version<'3.11'",
    ],
    extras_require={
        'test': [
            'pytest',
        ],
    },
    entry_points={
        'console_scripts': [
            'agile-runmc=py_agile.__main__:main',
        ],
        'py_agile': [
            'toy_generator=py_agile.generators.toy:ToyGenerator',
            'fpythia_generator=py_agile.generators.fpythia:FPythiaGenerator',
            'fherwig_generator=py_agile.generators.fherwig:FHerwigGenerator',
            'fherwigjimmy_generator=py_agile.generators.fherwig:FHerwigJimmyGenerator',
            'charybdis_fpythia_generator=py_agile.generators.charybdis:CharybdisFPythiaGenerator',
            'charybdis_fherwig_generator=py_agile.generators.charybdis:CharybdisFHerwigGenerator',
            'charybdis_fherwigjimmy_generator=py_agile.generators.charybdis:CharybdisFHerwigJimmyGenerator',
        ],
    },
)
