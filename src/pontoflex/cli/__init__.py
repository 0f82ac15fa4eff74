"""PontoFlex command line interface."""
