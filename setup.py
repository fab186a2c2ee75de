from setuptools import find_packages, setup

with open('README.rst') as f:
    readme = f.read()

installReqs = [
    'girder>=3,<4',
    'cachetools',
    'dogpile.cache',
    'requests',
]

extrasReqs = {
    'test': [
        'httmock',
        'mongomock<4',
        'pytest',
        'pytest-girder>=3,<4',
    ]
}

setup(
    name='girder-omero',
    version='0.1.0',
    description='Browse and import images from an OMERO server as a Girder repository.',
    long_description=readme,
    long_description_content_type='text/x-rst',
    author='CRS4',
    url='https://github.com/crs4/girder-omero',
    license='MIT',
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Environment :: Web Environment',
        'License :: OSI Approved :: MIT License',
        'Operating System :: OS Independent',
        'Programming Language :: Python',
        'Programming Language :: Python :: 3',
    ],
    python_requires='>=3.8',
    include_package_data=True,
    packages=find_packages(exclude=['tests', 'tests.*']),
    install_requires=installReqs,
    extras_require=extrasReqs,
    zip_safe=False,
    entry_points={
        'girder.plugin': [
            'omero = girder_omero:OmeroPlugin'
        ]
    }
)
