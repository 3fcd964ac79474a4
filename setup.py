from setuptools import find_packages, setup

setup(
    name='tubely',
    version='0.1',
    packages=find_packages(exclude=['tests']),
    install_requires=[
        'fastapi',
        'uvicorn',
        'python-multipart',
        'python-dotenv',
        'boto3',
        'PyJWT',
        'SQLAlchemy>=2.0',
    ],
    extras_require={
        'test': [
            'pytest',
            'pytest-asyncio',
            'httpx',
        ],
    },
)
