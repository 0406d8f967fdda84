# setup.py
from setuptools import setup, find_namespace_packages

setup(
    name="textui-templates",
    version="0.1.0",
    description="Template expansion engine and dependency-aware template cache for TextUI YAML documents",
    author="Enrique Paredes",
    author_email="eparedesbalen@gmail.com",
    package_dir={"": "src"},
    packages=find_namespace_packages(where="src", include=["textui_templates*"]),
    python_requires=">=3.9",
    install_requires=[
        "PyYAML>=6.0",
        "psutil>=5.9",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
        ],
    },
    entry_points={
        'console_scripts': [
            'textui-templates=textui_templates.main:main',
        ],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
    ],
)
