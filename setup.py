from setuptools import setup, find_namespace_packages

setup(
    name="email-triage-rules",
    version="0.1",
    packages=find_namespace_packages(include=['src', 'src.*']),
    install_requires=[
        'google-auth-oauthlib>=1.0.0',
        'google-auth-httplib2>=0.1.0',
        'google-api-python-client>=2.86.0',
        'SQLAlchemy>=2.0.19',
        'python-dateutil>=2.8.2',
        'python-dotenv>=1.0.0',
        'pydantic>=2.6.1',
        'structlog>=23.1.0',
        'mini-racer>=0.12.4',
    ],
    extras_require={
        'test': ['pytest>=7.4.0'],
    },
    entry_points={
        'console_scripts': ['email-triage=src.main:main'],
    },
)
