import setuptools

TESTS_REQUIRES = [
    'pytest',
    'pytest-cov',
]

with open('requirements.txt') as f:
    REQUIRES = f.readlines()

setuptools.setup(
    name='kustomize-to-helm',
    version='0.1.0',
    license="Apache License Version 2.0",
    description="Convert kustomize build output into a Helm chart",
    long_description="Converts the rendered manifests of a controller project into a "
                     "parameterized Helm chart, preserving values added by users across runs.",
    python_requires='>=3.9',
    packages=[
        'kustomize_to_helm',
        'kustomize_to_helm.generators',
    ],
    py_modules=['convert'],
    package_data={'': ['requirements.txt']},
    include_package_data=True,
    zip_safe=False,
    classifiers=[
        'Intended Audience :: Developers',
        'Programming Language :: Python :: 3',
        "License :: OSI Approved :: Apache Software License",
        "Operating System :: OS Independent",
        'Topic :: Software Development',
        'Topic :: Software Development :: Code Generators',
    ],
    install_requires=REQUIRES,
    tests_require=TESTS_REQUIRES,
    extras_require={'test': TESTS_REQUIRES},
    entry_points={
        'console_scripts': ['kustomize-to-helm=convert:main'],
    },
)
