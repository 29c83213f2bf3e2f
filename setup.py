from setuptools import setup

setup(
    name="pyBooks",
    version="0.1.0",
    author="J M Franck",
    packages=["pybooks"],
    package_data={"pybooks": ["templates/*.html"]},
    long_description=open("README.rst").read(),
    python_requires=">=3.9",
    install_requires=["PyYAML", "Jinja2", "watchdog"],
    extras_require={"test": ["pytest"]},
    entry_points=dict(
        console_scripts=["pybooks = pybooks.command_line:main"]
    ),
)
