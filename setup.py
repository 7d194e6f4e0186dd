from setuptools import setup, find_packages
setup(
    name="trend_watch",
    version="0.1.0",
    package_dir={"": "src"},
    packages=find_packages("src"),
    include_package_data=True,
    python_requires=">=3.11",
    install_requires=[
        "fastapi<0.137",
        "pydantic>=2",
        "pandas",
        "pytrends",
    ],
    extras_require={
        "test": ["pytest", "httpx"],
    },
    entry_points={
        'console_scripts': [
            'trend_watch=trend_watch.__main__:_safe_main'
        ]
    }
)
