from setuptools import setup, find_packages

setup(
    name='kubeinfra',
    version='0.1.0',
    packages=find_packages(),
    include_package_data=True,
    install_requires=[
        'typer[all]',
        'fastapi',
        'uvicorn',
        'python-dotenv',
        'requests',
        'paramiko',
        'pyyaml',
        'pydantic>=2',
        'jsonschema',
        'tenacity',
    ],
    extras_require={
        'test': [
            'pytest',
            'httpx',
        ]
    },
    entry_points={
        'console_scripts': [
            'kubeinfra=kubeinfra.cli:app'
        ]
    },
    author='Your Name',
    description='Declarative cluster infrastructure reconciler and SSH artifact distributor for Kubernetes hosts',
    classifiers=[
        'Programming Language :: Python :: 3',
        'Operating System :: OS Independent',
    ],
    python_requires='>=3.8',
)
