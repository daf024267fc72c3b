"""Agora command line interface"""
