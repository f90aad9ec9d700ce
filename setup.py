from setuptools import setup, find_packages

setup(
    name='plc_tag_toolkit',
    version='0.1.0',
    description='Multi-vendor PLC tag interchange for Siemens, Rockwell and Beckhoff files',
    packages=find_packages(exclude=['tests', 'tests.*']),
    python_requires='>=3.9',
    install_requires=[
        'lxml>=4.9.0',
        'openpyxl>=3.1.0',
    ],
    extras_require={
        'dev': ['pytest>=7.0'],
        'mcp': ['mcp[cli]>=1.2.0,<2'],
    },
    entry_points={
        'console_scripts': [
            'plc-tag-mcp-server=plc_tag_toolkit.mcp_server:main',
        ],
    },
)
