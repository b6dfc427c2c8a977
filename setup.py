from setuptools import find_packages, setup

setup(
    name='naturalneighbor',
    version='0.3.0',
    description='Discrete natural neighbor interpolation in 3D',
    package_dir={'': 'src'},
    packages=find_packages('src'),
    python_requires='>=3.8',
    install_requires=['numpy', 'scipy'],
    extras_require={'test': ['pytest']},
)
